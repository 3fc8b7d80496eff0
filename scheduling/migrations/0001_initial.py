# Initial scheduling schema: availability, exceptions, booking links,
# client meetings and internal meetings with participants

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import scheduling.availability
import scheduling.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='LawyerAvailability',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('timezone', models.CharField(default=scheduling.models.default_timezone, max_length=64)),
                ('weekly_schedule', models.JSONField(default=scheduling.availability.default_weekly_schedule)),
                ('buffer_minutes', models.PositiveIntegerField(default=15, help_text='Idle time required around every committed meeting', validators=[django.core.validators.MaxValueValidator(240)])),
                ('min_booking_hours', models.PositiveIntegerField(default=24, help_text='Minimum advance notice required for bookings', validators=[django.core.validators.MaxValueValidator(720)])),
                ('max_booking_days', models.PositiveIntegerField(default=30, help_text='Maximum days in advance a client may book', validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(365)])),
                ('allowed_durations', models.JSONField(default=scheduling.availability.default_allowed_durations, help_text='Meeting lengths in minutes clients may choose from')),
                ('default_location', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('lawyer', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='availability', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'lawyer availabilities',
            },
        ),
        migrations.CreateModel(
            name='AvailabilityException',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('is_blocked', models.BooleanField(default=True)),
                ('custom_slots', models.JSONField(blank=True, default=list)),
                ('reason', models.CharField(blank=True, max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('availability', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='exceptions', to='scheduling.lawyeravailability')),
            ],
            options={
                'ordering': ['date'],
            },
        ),
        migrations.AddConstraint(
            model_name='availabilityexception',
            constraint=models.UniqueConstraint(fields=('availability', 'date'), name='unique_exception_per_date'),
        ),
        migrations.CreateModel(
            name='BookingLink',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('client_id', models.PositiveIntegerField(blank=True, null=True)),
                ('case_id', models.PositiveIntegerField(blank=True, null=True)),
                ('client_name', models.CharField(blank=True, max_length=255)),
                ('recipient_email', models.EmailField(blank=True, max_length=254)),
                ('recipient_phone', models.CharField(blank=True, max_length=50)),
                ('token', models.CharField(default=scheduling.models.generate_link_token, editable=False, max_length=64, unique=True)),
                ('expires_at', models.DateTimeField(default=scheduling.models.default_link_expiry)),
                ('is_used', models.BooleanField(default=False)),
                ('used_at', models.DateTimeField(blank=True, null=True)),
                ('notification_channel', models.CharField(choices=[('none', 'Do not send'), ('email', 'Email'), ('whatsapp', 'WhatsApp'), ('both', 'Email and WhatsApp')], default='none', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='issued_booking_links', to=settings.AUTH_USER_MODEL)),
                ('lawyer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='booking_links', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='bookinglink',
            index=models.Index(fields=['lawyer', 'is_used'], name='sched_link_lawyer_used_idx'),
        ),
        migrations.AddIndex(
            model_name='bookinglink',
            index=models.Index(fields=['expires_at'], name='sched_link_expires_idx'),
        ),
        migrations.CreateModel(
            name='ClientMeeting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('scheduled_at', models.DateTimeField()),
                ('duration_minutes', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('ends_at', models.DateTimeField(editable=False)),
                ('timezone', models.CharField(default=scheduling.models.default_timezone, max_length=64)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('video_meeting_url', models.URLField(blank=True)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('client_id', models.PositiveIntegerField(blank=True, null=True)),
                ('case_id', models.PositiveIntegerField(blank=True, null=True)),
                ('client_name', models.CharField(blank=True, max_length=255)),
                ('client_email', models.EmailField(blank=True, max_length=254)),
                ('client_phone', models.CharField(blank=True, max_length=50)),
                ('title', models.CharField(blank=True, max_length=255)),
                ('notes', models.TextField(blank=True)),
                ('meeting_type', models.CharField(choices=[('in_person', 'In Person'), ('remote', 'Remote')], default='in_person', max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('completed', 'Completed'), ('cancelled_by_client', 'Cancelled by Client'), ('cancelled_by_lawyer', 'Cancelled by Lawyer'), ('no_show', 'No Show')], default='pending', max_length=24)),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('outcome', models.TextField(blank=True)),
                ('booking_link', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='meeting', to='scheduling.bookinglink')),
                ('lawyer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='client_meetings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['scheduled_at'],
            },
        ),
        migrations.AddIndex(
            model_name='clientmeeting',
            index=models.Index(fields=['lawyer', 'scheduled_at'], name='sched_client_lawyer_start_idx'),
        ),
        migrations.AddIndex(
            model_name='clientmeeting',
            index=models.Index(fields=['lawyer', 'ends_at'], name='sched_client_lawyer_end_idx'),
        ),
        migrations.AddIndex(
            model_name='clientmeeting',
            index=models.Index(fields=['status'], name='sched_client_status_idx'),
        ),
        migrations.CreateModel(
            name='InternalMeeting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('scheduled_at', models.DateTimeField()),
                ('duration_minutes', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('ends_at', models.DateTimeField(editable=False)),
                ('timezone', models.CharField(default=scheduling.models.default_timezone, max_length=64)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('video_meeting_url', models.URLField(blank=True)),
                ('cancellation_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('title', models.CharField(max_length=255)),
                ('agenda', models.TextField(blank=True)),
                ('video_provider', models.CharField(blank=True, choices=[('manual', 'Manual Link'), ('zoom', 'Zoom'), ('google_meet', 'Google Meet'), ('teams', 'Microsoft Teams')], max_length=20)),
                ('join_button_minutes_before', models.PositiveIntegerField(default=scheduling.models.default_join_minutes_before)),
                ('join_button_minutes_after', models.PositiveIntegerField(default=scheduling.models.default_join_minutes_after)),
                ('summary_permission', models.CharField(choices=[('creator_only', 'Creator Only'), ('all_attendees', 'All Attendees')], default='creator_only', max_length=20)),
                ('summary', models.TextField(blank=True)),
                ('summary_points', models.JSONField(blank=True, default=list)),
                ('summary_decisions', models.JSONField(blank=True, default=list)),
                ('summary_tasks', models.JSONField(blank=True, default=list)),
                ('status', models.CharField(choices=[('scheduled', 'Scheduled'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='scheduled', max_length=20)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='created_internal_meetings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['scheduled_at'],
            },
        ),
        migrations.AddIndex(
            model_name='internalmeeting',
            index=models.Index(fields=['scheduled_at', 'status'], name='sched_internal_start_idx'),
        ),
        migrations.AddIndex(
            model_name='internalmeeting',
            index=models.Index(fields=['ends_at'], name='sched_internal_end_idx'),
        ),
        migrations.CreateModel(
            name='InternalMeetingParticipant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('declined', 'Declined')], default='pending', max_length=10)),
                ('joined_at', models.DateTimeField(blank=True, null=True)),
                ('left_at', models.DateTimeField(blank=True, null=True)),
                ('meeting', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendances', to='scheduling.internalmeeting')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='meeting_attendances', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.AddConstraint(
            model_name='internalmeetingparticipant',
            constraint=models.UniqueConstraint(fields=('meeting', 'user'), name='unique_meeting_participant'),
        ),
        migrations.AddField(
            model_name='internalmeeting',
            name='participants',
            field=models.ManyToManyField(related_name='internal_meetings', through='scheduling.InternalMeetingParticipant', to=settings.AUTH_USER_MODEL),
        ),
    ]
